import pytest

from verlic.services.identity_service import (
    JidKind,
    classify_jid,
    extract_phone_number,
    extract_sender_id,
    is_group_or_broadcast,
    is_self_message,
)


class TestExtractPhoneNumber:
    @pytest.mark.parametrize(
        "jid,expected",
        [
            ("5511999998888@s.whatsapp.net", "5511999998888"),
            ("5511999998888@c.us", "5511999998888"),
            ("5511999998888:12@s.whatsapp.net", "5511999998888"),
            ("5511999998888", "5511999998888"),
            ("  5511999998888@s.whatsapp.net ", "5511999998888"),
        ],
    )
    def test_direct_identifiers(self, jid, expected):
        assert extract_phone_number(jid) == expected

    @pytest.mark.parametrize(
        "jid",
        [
            None,
            "",
            "120363025@g.us",
            "status@broadcast",
            "123456@newsletter",
            "187743@lid",
            "abc@s.whatsapp.net",
            "+55 11 99999-8888",
        ],
    )
    def test_unusable_identifiers(self, jid):
        assert extract_phone_number(jid) is None


class TestClassifyJid:
    def test_kinds(self):
        assert classify_jid("1203@g.us") == JidKind.GROUP
        assert classify_jid("status@broadcast") == JidKind.BROADCAST
        assert classify_jid("99@newsletter") == JidKind.BROADCAST
        assert classify_jid("187743@lid") == JidKind.LID
        assert classify_jid("5511@s.whatsapp.net") == JidKind.DIRECT


class TestExtractSenderId:
    def test_standard_key_remote_jid(self):
        envelope = {"data": {"key": {"remoteJid": "5511999998888@s.whatsapp.net"}}}
        assert extract_sender_id(envelope) == "5511999998888"

    def test_data_level_remote_jid(self):
        envelope = {"data": {"remoteJid": "5511999998888@s.whatsapp.net"}}
        assert extract_sender_id(envelope) == "5511999998888"

    def test_root_level_locators(self):
        assert extract_sender_id({"remoteJid": "5511911112222@s.whatsapp.net"}) == "5511911112222"
        assert extract_sender_id({"from": "5511911112222@c.us"}) == "5511911112222"
        assert extract_sender_id({"sender": "5511911112222"}) == "5511911112222"

    def test_numeric_sender_is_accepted(self):
        assert extract_sender_id({"sender": 5511911112222}) == "5511911112222"

    def test_key_remote_jid_wins_over_root_sender(self):
        envelope = {
            "sender": "5511900000000@s.whatsapp.net",
            "data": {"key": {"remoteJid": "5511999998888@s.whatsapp.net"}},
        }
        assert extract_sender_id(envelope) == "5511999998888"

    def test_unparseable_locator_falls_through(self):
        envelope = {
            "data": {"key": {"remoteJid": "garbage"}},
            "sender": "5511911112222@s.whatsapp.net",
        }
        assert extract_sender_id(envelope) == "5511911112222"

    def test_group_returns_none(self):
        envelope = {"data": {"key": {"remoteJid": "120363025@g.us", "participant": "5511999998888@s.whatsapp.net"}}}
        assert extract_sender_id(envelope) is None

    def test_broadcast_returns_none(self):
        assert extract_sender_id({"data": {"key": {"remoteJid": "status@broadcast"}}}) is None

    def test_lid_without_secondary_returns_none(self):
        assert extract_sender_id({"data": {"key": {"remoteJid": "187743@lid"}}}) is None

    def test_lid_with_participant(self):
        envelope = {
            "data": {"key": {"remoteJid": "187743@lid", "participant": "5511999998888@s.whatsapp.net"}}
        }
        assert extract_sender_id(envelope) == "5511999998888"

    def test_lid_with_sender_pn(self):
        envelope = {"data": {"key": {"remoteJid": "187743@lid", "senderPn": "5511977776666@s.whatsapp.net"}}}
        assert extract_sender_id(envelope) == "5511977776666"

    def test_lid_secondary_that_is_also_lid_is_skipped(self):
        envelope = {
            "data": {
                "key": {"remoteJid": "187743@lid", "participant": "99999@lid"},
                "participant": "5511966665555@s.whatsapp.net",
            }
        }
        assert extract_sender_id(envelope) == "5511966665555"

    @pytest.mark.parametrize("envelope", [None, [], "text", {}, {"data": None}, {"data": {"key": "x"}}])
    def test_malformed_envelopes_never_raise(self, envelope):
        assert extract_sender_id(envelope) is None


class TestGuards:
    def test_self_message(self):
        assert is_self_message({"data": {"key": {"fromMe": True}}}) is True
        assert is_self_message({"data": {"fromMe": True}}) is True
        assert is_self_message({"fromMe": True}) is True
        assert is_self_message({"data": {"key": {"fromMe": False}}}) is False
        assert is_self_message({}) is False

    def test_group_or_broadcast(self):
        assert is_group_or_broadcast({"data": {"key": {"remoteJid": "1203@g.us"}}}) is True
        assert is_group_or_broadcast({"data": {"key": {"remoteJid": "status@broadcast"}}}) is True
        assert is_group_or_broadcast({"data": {"key": {"remoteJid": "5511@s.whatsapp.net"}}}) is False
