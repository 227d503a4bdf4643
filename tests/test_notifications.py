from __future__ import annotations

import warnings
from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock, patch

import pytest
from firebase_admin import exceptions, messaging

from app.core.config import settings
from app.core.errors import (
    ConfigError,
    InvalidInputError,
    InvalidPayloadError,
    InvalidTokensError,
    NotFoundError,
    UnknownError,
)
from app.models.family.document import FamilyDocument, MemberDocument
from app.models.notifications.schemas import NotificationPayload
from app.repositories.family.repository import FamilyRepository
from app.repositories.member.repository import MemberRepository
from app.services.notifications.messenger import (
    MAX_BATCH_SIZE,
    MulticastOutcome,
    PushMessenger,
)
from app.services.notifications.service import NotificationService


def _token(label: str) -> str:
    return f"{label}:" + "x" * 150


def _member(uid: str, tokens: list) -> MemberDocument:
    return MemberDocument(uid=uid, tokens=tokens)


T1, T2, T3, T4 = (_token(f"t{n}") for n in range(1, 5))


# ---------------------------------------------------------------------------
# NotificationService tests
# ---------------------------------------------------------------------------


class TestNotifyFamily:
    @pytest.fixture
    def families(self):
        repo = AsyncMock(spec=FamilyRepository)
        repo.find_by_code.return_value = FamilyDocument(
            code="SMITH1", members=["u1", "u2", "u3"]
        )
        return repo

    @pytest.fixture
    def stored(self):
        return {
            "u1": _member("u1", [T1, T2]),
            "u2": _member("u2", [T3]),
            "u3": _member("u3", [T4]),
        }

    @pytest.fixture
    def members(self, stored):
        repo = AsyncMock(spec=MemberRepository)

        async def find_by_uid(uid):
            return stored.get(uid)

        repo.find_by_uid.side_effect = find_by_uid
        return repo

    @pytest.fixture
    def messenger(self):
        messenger = AsyncMock(spec=PushMessenger)

        async def send_multicast(tokens, title, body, image=None):
            return MulticastOutcome(success_count=len(tokens), failure_count=0)

        messenger.send_multicast.side_effect = send_multicast
        return messenger

    @pytest.fixture
    def service(self, families, members, messenger):
        return NotificationService(families, members, messenger)

    async def test_excluded_member_gets_nothing(self, service, members, messenger):
        payload = NotificationPayload(title="Milk added", exclude_uid="u1")

        outcome = await service.notify_family("SMITH1", payload)

        sent_tokens = messenger.send_multicast.await_args.args[0]
        assert set(sent_tokens) == {T3, T4}
        assert len(sent_tokens) == 2
        assert "u1" not in [c.args[0] for c in members.find_by_uid.await_args_list]
        assert outcome.result.success_count == 2
        assert outcome.result.failure_count == 0
        assert outcome.result.total_tokens == 2
        assert outcome.failed_tokens == []

    async def test_sends_to_everyone_without_exclusion(self, service, messenger):
        await service.notify_family("SMITH1", NotificationPayload(title="Hi"))
        assert messenger.send_multicast.await_args.args[0] == [T1, T2, T3, T4]

    async def test_tokens_deduplicated_across_family(self, service, stored, messenger):
        stored["u3"] = _member("u3", [T3, "short"])
        await service.notify_family("SMITH1", NotificationPayload(title="Hi"))
        assert messenger.send_multicast.await_args.args[0] == [T1, T2, T3]

    async def test_member_over_limit_is_trimmed_to_last_ten(self, service, stored, members):
        tokens = [_token(f"d{n}") for n in range(12)]
        stored["u2"] = _member("u2", tokens)

        await service.notify_family("SMITH1", NotificationPayload(title="Hi"))

        members.replace_tokens_many.assert_awaited_once_with({"u2": tokens[-10:]})

    async def test_no_trim_when_within_limit(self, service, members):
        await service.notify_family("SMITH1", NotificationPayload(title="Hi"))
        members.replace_tokens_many.assert_not_awaited()

    async def test_trim_failure_does_not_stop_send(self, service, stored, members, messenger):
        stored["u2"] = _member("u2", [_token(f"d{n}") for n in range(11)])
        members.replace_tokens_many.side_effect = RuntimeError("Database write error")

        outcome = await service.notify_family("SMITH1", NotificationPayload(title="Hi"))

        messenger.send_multicast.assert_awaited_once()
        assert outcome.result is not None

    async def test_member_read_failure_is_skipped(self, service, members, messenger):
        async def find_by_uid(uid):
            if uid == "u2":
                raise RuntimeError("corrupt record")
            return {"u1": _member("u1", [T1]), "u3": _member("u3", [T4])}[uid]

        members.find_by_uid.side_effect = find_by_uid

        await service.notify_family("SMITH1", NotificationPayload(title="Hi"))

        assert messenger.send_multicast.await_args.args[0] == [T1, T4]

    async def test_missing_member_record_is_skipped(self, service, stored, messenger):
        del stored["u3"]
        await service.notify_family("SMITH1", NotificationPayload(title="Hi"))
        assert messenger.send_multicast.await_args.args[0] == [T1, T2, T3]

    async def test_no_valid_tokens_is_not_an_error(self, service, stored, messenger):
        stored.update(
            u1=_member("u1", ["short"]), u2=_member("u2", []), u3=_member("u3", [None])
        )
        outcome = await service.notify_family("SMITH1", NotificationPayload(title="Hi"))
        assert outcome.result is None
        messenger.send_multicast.assert_not_awaited()

    async def test_message_text(self, service, messenger):
        payload = NotificationPayload(title="  Eggs bought  ", body="  ", image="https://img/x.png")
        await service.notify_family("SMITH1", payload)

        kwargs = messenger.send_multicast.await_args.kwargs
        assert kwargs["title"] == "Eggs bought"
        assert kwargs["body"] == settings.push_default_body
        assert kwargs["image"] == "https://img/x.png"

    async def test_body_is_trimmed(self, service, messenger):
        await service.notify_family(
            "SMITH1", NotificationPayload(title="Hi", body=" Bread is on the list ")
        )
        assert messenger.send_multicast.await_args.kwargs["body"] == "Bread is on the list"

    async def test_failed_tokens_are_reported_for_cleanup(self, service, messenger):
        messenger.send_multicast.side_effect = None
        messenger.send_multicast.return_value = MulticastOutcome(
            success_count=3, failure_count=1, failed_tokens=[T2]
        )

        outcome = await service.notify_family("SMITH1", NotificationPayload(title="Hi"))

        assert outcome.result.failure_count == 1
        assert outcome.result.total_tokens == 4
        assert outcome.failed_tokens == [T2]
        assert outcome.member_ids == ["u1", "u2", "u3"]

    async def test_unknown_family(self, service, families):
        families.find_by_code.return_value = None
        with pytest.raises(NotFoundError, match="Family not found"):
            await service.notify_family("NOPE00", NotificationPayload(title="Hi"))

    async def test_family_without_members(self, service, families):
        families.find_by_code.return_value = FamilyDocument(code="EMPTY1", members=[])
        with pytest.raises(InvalidInputError, match="No users"):
            await service.notify_family("EMPTY1", NotificationPayload(title="Hi"))

    async def test_empty_family_code(self, service, families):
        with pytest.raises(InvalidInputError):
            await service.notify_family("", NotificationPayload(title="Hi"))
        families.find_by_code.assert_not_awaited()

    async def test_empty_title(self, service, families):
        payload = NotificationPayload.model_construct(title="")
        with pytest.raises(InvalidInputError):
            await service.notify_family("SMITH1", payload)
        families.find_by_code.assert_not_awaited()

    async def test_unconfigured_push_backend(self, service, families, messenger):
        messenger.ensure_ready.side_effect = ConfigError()
        with pytest.raises(ConfigError):
            await service.notify_family("SMITH1", NotificationPayload(title="Hi"))
        families.find_by_code.assert_not_awaited()

    async def test_provider_errors_propagate(self, service, messenger):
        messenger.send_multicast.side_effect = InvalidTokensError()
        with pytest.raises(InvalidTokensError):
            await service.notify_family("SMITH1", NotificationPayload(title="Hi"))


class TestCleanupFailedTokens:
    @pytest.fixture
    def members(self):
        stored = {
            "u1": _member("u1", [T1, T2]),
            "u2": _member("u2", [T3]),
            "u3": None,
        }
        repo = AsyncMock(spec=MemberRepository)

        async def find_by_uid(uid):
            return stored[uid]

        repo.find_by_uid.side_effect = find_by_uid
        return repo

    @pytest.fixture
    def service(self, members):
        return NotificationService(
            AsyncMock(spec=FamilyRepository), members, AsyncMock(spec=PushMessenger)
        )

    async def test_only_changed_members_are_written(self, service, members):
        await service.cleanup_failed_tokens(["u1", "u2", "u3"], [T2])
        members.replace_tokens.assert_awaited_once_with("u1", [T1])

    async def test_nothing_written_when_no_member_holds_the_token(self, service, members):
        await service.cleanup_failed_tokens(["u1", "u2"], [T4])
        members.replace_tokens.assert_not_awaited()

    async def test_errors_are_swallowed(self, service, members):
        members.replace_tokens.side_effect = RuntimeError("DB crashed")
        await service.cleanup_failed_tokens(["u1"], [T1])  # must not raise


# ---------------------------------------------------------------------------
# PushMessenger tests
# ---------------------------------------------------------------------------


def _batch(*successes: bool) -> SimpleNamespace:
    responses = [
        SimpleNamespace(success=ok, exception=None if ok else Exception("unregistered"))
        for ok in successes
    ]
    return SimpleNamespace(
        success_count=sum(successes),
        failure_count=len(successes) - sum(successes),
        responses=responses,
    )


class TestPushMessenger:
    @pytest.fixture
    def firebase_app(self):
        return MagicMock()

    @pytest.fixture
    def messenger(self, firebase_app):
        return PushMessenger(app_provider=lambda: firebase_app, channel_id="family_channel")

    def test_message_carries_delivery_hints(self, messenger):
        message = messenger.build_message([T1], "Title", "Body", image="https://img/x.png")

        assert message.tokens == [T1]
        assert message.notification.title == "Title"
        assert message.notification.body == "Body"
        assert message.notification.image == "https://img/x.png"
        assert message.apns.payload.aps.sound == "default"
        assert message.apns.payload.aps.badge == 1
        assert message.android.priority == "high"
        assert message.android.notification.channel_id == "family_channel"
        assert message.android.notification.sound == "default"
        assert message.webpush.headers == {"Urgency": "high"}

    def test_building_a_message_emits_no_deprecation_warning(self, messenger):
        with warnings.catch_warnings():
            warnings.simplefilter("error", DeprecationWarning)
            message = messenger.build_message([T1, T2], "Title", "Body")
        assert message.tokens == [T1, T2]

    async def test_large_families_are_sent_in_batches(self, messenger):
        tokens = [_token(f"d{n}") for n in range(MAX_BATCH_SIZE + 2)]

        def send(message, app=None):
            return _batch(*([True] * (len(message.tokens) - 1) + [False]))

        with patch(
            "app.services.notifications.messenger.messaging.send_each_for_multicast",
            side_effect=send,
        ) as send_mock:
            outcome = await messenger.send_multicast(tokens, "Title", "Body")

        batch_sizes = [len(c.args[0].tokens) for c in send_mock.call_args_list]
        assert batch_sizes == [MAX_BATCH_SIZE, 2]
        assert outcome.success_count == MAX_BATCH_SIZE + 2 - 2
        assert outcome.failure_count == 2
        assert outcome.failed_tokens == [tokens[MAX_BATCH_SIZE - 1], tokens[-1]]

    async def test_failed_tokens_are_collected(self, messenger, firebase_app):
        with patch(
            "app.services.notifications.messenger.messaging.send_each_for_multicast",
            return_value=_batch(True, False, True),
        ) as send:
            outcome = await messenger.send_multicast([T1, T2, T3], "Title", "Body")

        assert send.call_args.kwargs["app"] is firebase_app
        assert outcome.success_count == 2
        assert outcome.failure_count == 1
        assert outcome.failed_tokens == [T2]

    @pytest.mark.parametrize(
        "error, expected",
        [
            (ValueError("bad message"), InvalidPayloadError),
            (exceptions.InvalidArgumentError("bad field"), InvalidPayloadError),
            (messaging.UnregisteredError("gone"), InvalidTokensError),
            (exceptions.UnavailableError("down"), UnknownError),
        ],
    )
    async def test_provider_errors_are_classified(self, messenger, error, expected):
        with patch(
            "app.services.notifications.messenger.messaging.send_each_for_multicast",
            side_effect=error,
        ):
            with pytest.raises(expected):
                await messenger.send_multicast([T1], "Title", "Body")

    async def test_unconfigured_backend(self):
        def no_app():
            raise ConfigError()

        messenger = PushMessenger(app_provider=no_app)
        with pytest.raises(ConfigError):
            messenger.ensure_ready()
        with pytest.raises(ConfigError):
            await messenger.send_multicast([T1], "Title", "Body")
