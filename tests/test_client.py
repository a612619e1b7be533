import asyncio
import uuid

import httpx
import pytest

from skatebounty.client.api import BountyClient
from skatebounty.client.session import SessionStore
from skatebounty.client.votes import VoteBoard
from skatebounty.errors import AuthRequired, ConstraintViolation, NotFound, TransientError, ValidationError
from skatebounty.main import app
from skatebounty.security import make_access_token

def _session() -> SessionStore:
    return SessionStore(make_access_token(str(uuid.uuid4())))

def _asgi_client(session=None) -> BountyClient:
    return BountyClient("http://test", session=session, transport=httpx.ASGITransport(app=app))

def _offline_client(session=None) -> BountyClient:
    def handler(request):
        pytest.fail(f"unexpected request {request.method} {request.url}")
    return BountyClient("http://test", session=session, transport=httpx.MockTransport(handler))

@pytest.mark.asyncio
async def test_signed_out_mutations_fail_before_network():
    async with _offline_client() as client:
        with pytest.raises(AuthRequired) as exc:
            await client.create_bounty("kickflip")
        assert exc.value.message == "Sign in to post a bounty"
        with pytest.raises(AuthRequired):
            await client.vote(uuid.uuid4())
        with pytest.raises(AuthRequired):
            await client.submit_proof(uuid.uuid4(), "https://www.instagram.com/p/A/")

@pytest.mark.asyncio
async def test_invalid_input_fails_before_network():
    async with _offline_client(_session()) as client:
        with pytest.raises(ValidationError) as exc:
            await client.create_bounty("kickflip", reward="-5")
        assert exc.value.field == "reward"
        with pytest.raises(ValidationError):
            await client.create_bounty("   ")
        with pytest.raises(ValidationError) as exc:
            await client.submit_proof(uuid.uuid4(), "https://www.instagram.com/someskater/")
        assert exc.value.field == "post_url"
        with pytest.raises(ValidationError):
            await client.set_handle("x")
        with pytest.raises(ValidationError):
            await client.create_spot("Plaza", lat=1.0)

@pytest.mark.asyncio
async def test_end_to_end_over_asgi(ac):
    owner, skater, voter = _session(), _session(), _session()
    async with _asgi_client(owner) as oc, _asgi_client(skater) as sc, _asgi_client(voter) as vc:
        b = await oc.create_bounty("kickflip", reward="$20")
        assert b["reward_label"] == "$20"
        await sc.accept_bounty(b["id"])
        with pytest.raises(ConstraintViolation):
            await sc.accept_bounty(b["id"])

        s = await sc.submit_proof(b["id"], "https://instagram.com/p/Kf1ip")
        assert s["media_url"] == "https://www.instagram.com/p/Kf1ip/"

        result = await vc.vote(s["id"])
        assert result["vote_count"] == 1

        screen = await vc.load_bounty_screen(b["id"])
        assert screen["detail"]["bounty"]["id"] == b["id"]
        assert screen["submissions"]["items"][0]["voted_by_me"] is True

        with pytest.raises(NotFound):
            await vc.get_bounty(uuid.uuid4())

@pytest.mark.asyncio
async def test_server_errors_map_to_taxonomy():
    def handler(request):
        if request.url.path == "/bounties":
            return httpx.Response(409, json={"detail": "nope", "field": "trick"})
        return httpx.Response(422, json={"detail": [{"loc": ["body", "trick"], "msg": "too long"}]})

    async with BountyClient("http://test", session=_session(), transport=httpx.MockTransport(handler)) as client:
        with pytest.raises(ConstraintViolation) as exc:
            await client.create_bounty("kickflip")
        assert exc.value.message == "nope" and exc.value.field == "trick"
        with pytest.raises(ValidationError) as exc:
            await client.get_bounty(uuid.uuid4())
        assert exc.value.field == "trick"

@pytest.mark.asyncio
async def test_timeouts_are_transient():
    def handler(request):
        raise httpx.ReadTimeout("slow", request=request)

    async with BountyClient("http://test", transport=httpx.MockTransport(handler)) as client:
        with pytest.raises(TransientError):
            await client.list_bounties()

@pytest.mark.asyncio
async def test_optimistic_vote_rolls_back_exactly():
    sid = str(uuid.uuid4())

    def handler(request):
        return httpx.Response(409, json={"detail": "You already voted for this submission", "field": None})

    async with BountyClient("http://test", session=_session(), transport=httpx.MockTransport(handler)) as client:
        board = VoteBoard(client)
        board.load([{"id": sid, "vote_count": 4, "voted_by_me": False}])
        with pytest.raises(ConstraintViolation):
            await board.vote(sid)
        assert board.count(sid) == 4
        assert board.has_voted(sid) is False

@pytest.mark.asyncio
async def test_optimistic_unvote_floors_at_zero_and_takes_server_count():
    sid = str(uuid.uuid4())
    seen_counts = []

    async with BountyClient("http://test", session=_session(), transport=httpx.MockTransport(
        lambda request: httpx.Response(200, json={
            "submission_id": sid, "voted": False, "vote_count": 0, "verified": False, "degraded": False,
        })
    )) as client:
        board = VoteBoard(client)
        board.load([{"id": sid, "vote_count": 0, "voted_by_me": True}])

        original = client.unvote

        async def spy(submission_id):
            seen_counts.append(board.count(submission_id))
            return await original(submission_id)

        client.unvote = spy
        await board.unvote(sid)
        assert seen_counts == [0]
        assert board.count(sid) == 0 and board.has_voted(sid) is False

@pytest.mark.asyncio
async def test_rollback_skipped_after_authoritative_reload():
    sid = str(uuid.uuid4())
    board_ref = {}

    def handler(request):
        # a refresh lands while the vote is in flight
        board_ref["board"].load([{"id": sid, "vote_count": 9, "voted_by_me": True}])
        return httpx.Response(503, json={"detail": "down", "field": None})

    async with BountyClient("http://test", session=_session(), transport=httpx.MockTransport(handler)) as client:
        board = VoteBoard(client)
        board_ref["board"] = board
        board.load([{"id": sid, "vote_count": 1, "voted_by_me": False}])
        with pytest.raises(TransientError):
            await board.vote(sid)
        assert board.count(sid) == 9 and board.has_voted(sid) is True

def test_session_store_notifies_on_user_change():
    store = SessionStore()
    changes = []
    remove = store.on_session_change(changes.append)
    uid = uuid.uuid4()
    store.set_token(make_access_token(str(uid)))
    store.set_token(make_access_token(str(uid)))  # same user, no event
    store.sign_out()
    assert changes == [uid, None]
    remove()
    store.set_token(make_access_token(str(uuid.uuid4())))
    assert len(changes) == 2
    assert store.identity().is_authenticated

@pytest.mark.asyncio
async def test_backdated_post_refused_before_network():
    async with _offline_client(_session()) as client:
        with pytest.raises(ValidationError) as exc:
            await client.submit_proof(
                uuid.uuid4(), "https://www.instagram.com/p/Kf1ip/",
                posted_at="2000-01-01T00:00:00Z", bounty_created_at="2026-05-01T10:00:00Z",
            )
        assert exc.value.field == "posted_at"

@pytest.mark.asyncio
async def test_backdated_post_checked_against_fetched_bounty():
    sent = []
    bid = uuid.uuid4()

    def handler(request):
        sent.append(request.method)
        if request.method == "GET":
            return httpx.Response(200, json={"bounty": {"id": str(bid), "created_at": "2026-05-01T10:00:00Z"}})
        pytest.fail("submission should not be sent")

    async with BountyClient("http://test", session=_session(), transport=httpx.MockTransport(handler)) as client:
        with pytest.raises(ValidationError):
            await client.submit_proof(bid, "https://www.instagram.com/p/Kf1ip/", posted_at="2026-04-30T23:59:59Z")
    assert sent == ["GET"]

@pytest.mark.asyncio
async def test_overlapping_failures_restore_prior_state():
    sid = str(uuid.uuid4())
    gate = asyncio.Event()

    async def handler(request):
        await gate.wait()
        return httpx.Response(503, json={"detail": "down", "field": None})

    async with BountyClient("http://test", session=_session(), transport=httpx.MockTransport(handler)) as client:
        board = VoteBoard(client)
        board.load([{"id": sid, "vote_count": 0, "voted_by_me": False}])
        voting = asyncio.create_task(board.vote(sid))
        await asyncio.sleep(0)
        unvoting = asyncio.create_task(board.unvote(sid))
        await asyncio.sleep(0)
        assert board.count(sid) == 0 and board.has_voted(sid) is False
        gate.set()
        results = await asyncio.gather(voting, unvoting, return_exceptions=True)
        assert all(isinstance(r, TransientError) for r in results)
        assert board.count(sid) == 0 and board.has_voted(sid) is False

@pytest.mark.asyncio
async def test_one_failure_keeps_other_in_flight_change():
    sid = str(uuid.uuid4())
    gates = {"POST": asyncio.Event(), "DELETE": asyncio.Event()}

    async def handler(request):
        await gates[request.method].wait()
        if request.method == "POST":
            return httpx.Response(503, json={"detail": "down", "field": None})
        return httpx.Response(200, json={
            "submission_id": sid, "voted": False, "vote_count": 2, "verified": False, "degraded": False,
        })

    async with BountyClient("http://test", session=_session(), transport=httpx.MockTransport(handler)) as client:
        board = VoteBoard(client)
        board.load([{"id": sid, "vote_count": 3, "voted_by_me": True}])
        unvoting = asyncio.create_task(board.unvote(sid))
        await asyncio.sleep(0)
        voting = asyncio.create_task(board.vote(sid))
        await asyncio.sleep(0)
        assert board.count(sid) == 3 and board.has_voted(sid) is True

        gates["POST"].set()
        with pytest.raises(TransientError):
            await voting
        # the failed vote is dropped; the unvote is still shown
        assert board.count(sid) == 2 and board.has_voted(sid) is False

        gates["DELETE"].set()
        await unvoting
        assert board.count(sid) == 2 and board.has_voted(sid) is False
