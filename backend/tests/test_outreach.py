"""
Tests for bulk outreach dispatch.
"""
import asyncio
from unittest.mock import AsyncMock, MagicMock, patch

from app.models import Integrations, MessageChannel, MessageStatus
from app.services import outreach
from app.services.sms_client import SmsClientError


def connected(**services):
    return Integrations.model_validate(services)


SIMULATED_SMS = connected(sms={"enabled": True, "connected": True})
LIVE_SMS = connected(sms={
    "enabled": True, "connected": True,
    "accountSid": "AC9f8e7d6c5b", "authToken": "tok", "senderId": "+15550001111",
})


class TestPersonalize:

    def test_replaces_every_placeholder(self):
        assert outreach.personalize("Hi {{name}}! Bye {{name}}.", "Dana") == "Hi Dana! Bye Dana."

    def test_template_without_placeholder(self):
        assert outreach.personalize("Hello there", "Dana") == "Hello there"

    def test_destination(self, make_lead):
        lead = make_lead(email="dana@gmail.com", phone="5550001")
        assert outreach.destination_for(lead, MessageChannel.EMAIL) == "dana@gmail.com"
        assert outreach.destination_for(lead, MessageChannel.WHATSAPP) == "5550001"


class TestConcurrencySetting:

    def test_default(self, monkeypatch):
        monkeypatch.delenv("OUTREACH_CONCURRENCY", raising=False)
        assert outreach.outreach_concurrency() == 5

    def test_invalid_value(self, monkeypatch):
        monkeypatch.setenv("OUTREACH_CONCURRENCY", "lots")
        assert outreach.outreach_concurrency() == 5

    def test_floor_of_one(self, monkeypatch):
        monkeypatch.setenv("OUTREACH_CONCURRENCY", "0")
        assert outreach.outreach_concurrency() == 1


class TestDispatchMessage:

    def test_simulated_channel_succeeds(self):
        assert asyncio.run(outreach.dispatch_message("555", "hi", MessageChannel.SMS, SIMULATED_SMS)) is True

    def test_disconnected_channel_fails(self):
        assert asyncio.run(outreach.dispatch_message("555", "hi", MessageChannel.SMS, Integrations())) is False

    def test_missing_destination_fails(self):
        assert asyncio.run(outreach.dispatch_message("", "hi", MessageChannel.SMS, SIMULATED_SMS)) is False

    def test_live_sms_goes_to_twilio(self):
        client = MagicMock()
        client.send_sms = AsyncMock(return_value={"sid": "SM1"})
        with patch.object(outreach, "TwilioSmsClient", return_value=client) as cls:
            ok = asyncio.run(outreach.dispatch_message("+15551234567", "hi", MessageChannel.SMS, LIVE_SMS))
        assert ok is True
        cls.assert_called_once_with("AC9f8e7d6c5b", "tok", "+15550001111")
        client.send_sms.assert_awaited_once_with("+15551234567", "hi")

    def test_provider_error_is_a_failure(self):
        client = MagicMock()
        client.send_sms = AsyncMock(side_effect=SmsClientError("bad number", status_code=400))
        with patch.object(outreach, "TwilioSmsClient", return_value=client):
            ok = asyncio.run(outreach.dispatch_message("+1", "hi", MessageChannel.SMS, LIVE_SMS))
        assert ok is False

    def test_live_whatsapp(self):
        integrations = connected(whatsapp={
            "enabled": True, "connected": True, "accessToken": "EAAB", "phoneNumberId": "1099",
        })
        with patch("app.services.outreach.WhatsAppClient.send_text", new_callable=AsyncMock) as send_text:
            ok = asyncio.run(outreach.dispatch_message("+1 555", "hi", MessageChannel.WHATSAPP, integrations))
        assert ok is True
        send_text.assert_awaited_once_with("+1 555", "hi")

    def test_email_uses_email_service(self):
        integrations = connected(email={"enabled": True, "connected": True, "fromEmail": "agent@realty.com"})
        with patch.object(outreach, "send_email", return_value=True) as send_email:
            ok = asyncio.run(outreach.dispatch_message("dana@gmail.com", "hi", MessageChannel.EMAIL, integrations))
        assert ok is True
        send_email.assert_called_once_with(to_email="dana@gmail.com", from_email="agent@realty.com", body="hi")


class TestSendOutreach:

    def test_personalized_results_in_input_order(self, make_lead):
        a, b = make_lead(name="Dana Lee"), make_lead(name="Sam Park")
        results = asyncio.run(outreach.send_outreach(
            [b.id, a.id], {a.id: a, b.id: b}, "Hi {{name}}", MessageChannel.SMS, SIMULATED_SMS,
        ))
        assert [r.leadId for r in results] == [b.id, a.id]
        assert [r.content for r in results] == ["Hi Sam Park", "Hi Dana Lee"]
        assert all(r.status == MessageStatus.SENT for r in results)

    def test_scheduled_never_dispatches(self, make_lead):
        lead = make_lead()
        with patch.object(outreach, "dispatch_message", new_callable=AsyncMock) as dispatch:
            results = asyncio.run(outreach.send_outreach(
                [lead.id], {lead.id: lead}, "Hi", MessageChannel.SMS, SIMULATED_SMS,
                scheduled_at="2026-04-01T09:00:00Z",
            ))
        dispatch.assert_not_awaited()
        assert results[0].status == MessageStatus.QUEUED

    def test_failure_does_not_stop_batch(self, make_lead):
        leads = [make_lead(), make_lead(), make_lead()]

        async def flaky(to, content, channel, integrations):
            return to != leads[0].phone

        with patch.object(outreach, "dispatch_message", side_effect=flaky):
            results = asyncio.run(outreach.send_outreach(
                [lead.id for lead in leads], {lead.id: lead for lead in leads},
                "Hi", MessageChannel.SMS, SIMULATED_SMS,
            ))
        assert [r.status for r in results] == [MessageStatus.FAILED, MessageStatus.SENT, MessageStatus.SENT]
        assert results[0].error == "Dispatch failed"

    def test_unknown_and_repeated_ids(self, make_lead):
        lead = make_lead()
        results = asyncio.run(outreach.send_outreach(
            [lead.id, "missing", lead.id], {lead.id: lead}, "Hi", MessageChannel.SMS, SIMULATED_SMS,
        ))
        assert len(results) == 2
        assert results[1].skipped is True
        assert results[1].status is None

    def test_concurrency_is_bounded(self, make_lead):
        leads = [make_lead() for _ in range(6)]
        state = {"active": 0, "peak": 0}

        async def slow(to, content, channel, integrations):
            state["active"] += 1
            state["peak"] = max(state["peak"], state["active"])
            await asyncio.sleep(0.01)
            state["active"] -= 1
            return True

        with patch.object(outreach, "dispatch_message", side_effect=slow):
            asyncio.run(outreach.send_outreach(
                [lead.id for lead in leads], {lead.id: lead for lead in leads},
                "Hi", MessageChannel.SMS, SIMULATED_SMS, concurrency=2,
            ))
        assert state["peak"] == 2
