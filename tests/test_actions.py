import pytest

from app.errors import ActionNotAvailable, QuotaExhausted, SubmitFailed, TaskNotFound
from app.services.actions import ActionDispatcher
from app.storage.schema import ImageAction, ImageStatus, Provider
from conftest import StubMidjourney, make_image

NOTIFY_URL = "http://hooks.local/notify"
UPSCALE = "MJ::JOB::upsample::2::abc"


@pytest.fixture
def api():
    return StubMidjourney()


@pytest.fixture
def dispatcher(repo, api):
    return ActionDispatcher(repo, api, NOTIFY_URL)


@pytest.fixture
def parent(repo):
    image = make_image(external_task_id="mj-parent", public_status=True)
    repo.create(image)
    repo.update(
        image.id,
        status=ImageStatus.SUCCESS,
        artifact_ref="http://files/p.png",
        buttons=[ImageAction(custom_id=UPSCALE, label="U2")],
    )
    return repo.get(image.id)


def test_action_creates_derivative_task(repo, api, dispatcher, parent):
    new_id = dispatcher.invoke(parent.id, UPSCALE, owner_id="user-1")

    child = repo.get(new_id)
    assert child.id != parent.id
    assert child.status is ImageStatus.IN_PROGRESS
    assert child.external_task_id and child.external_task_id != parent.external_task_id
    for field in ("owner_id", "prompt", "provider", "model", "width", "height", "options", "public_status"):
        assert getattr(child, field) == getattr(parent, field)
    assert child.buttons == [] and child.artifact_ref is None
    assert api.submitted == [("action", UPSCALE, "mj-parent", NOTIFY_URL)]
    assert repo.get(parent.id) == parent
    assert repo.get_by_external_task_id(Provider.MIDJOURNEY, child.external_task_id).id == new_id


def test_unknown_or_foreign_task(dispatcher, parent):
    with pytest.raises(TaskNotFound):
        dispatcher.invoke("missing", UPSCALE)
    with pytest.raises(TaskNotFound):
        dispatcher.invoke(parent.id, UPSCALE, owner_id="someone-else")


def test_action_must_be_currently_offered(repo, api, dispatcher, parent):
    with pytest.raises(ActionNotAvailable):
        dispatcher.invoke(parent.id, "MJ::JOB::reroll::0::abc")

    other = make_image("other", external_task_id="mj-other")
    repo.create(other)
    repo.update(other.id, buttons=[ImageAction(custom_id=UPSCALE)])
    assert repo.get(other.id).buttons
    repo.update(other.id, buttons=[])
    with pytest.raises(ActionNotAvailable):
        dispatcher.invoke(other.id, UPSCALE)
    assert api.submitted == []


def test_quota_rejection(api, dispatcher, parent, repo):
    api.code = 4
    api.description = "quota_not_enough"

    with pytest.raises(QuotaExhausted):
        dispatcher.invoke(parent.id, UPSCALE)
    assert [i.id for i in repo.list_by_owner("user-1")] == [parent.id]


def test_unknown_rejection_carries_description(api, dispatcher, parent):
    api.code = 23
    api.description = "queue is full"

    with pytest.raises(SubmitFailed) as exc:
        dispatcher.invoke(parent.id, UPSCALE)
    assert not isinstance(exc.value, QuotaExhausted)
    assert exc.value.description == "queue is full"


def test_already_tracked_task_is_returned(repo, api, dispatcher, parent):
    repo.create(make_image("other", external_task_id="mj-other"))
    api.code = 21
    api.result = "mj-other"

    assert dispatcher.invoke(parent.id, UPSCALE) == "other"
    assert sorted(i.id for i in repo.list_by_owner("user-1")) == sorted([parent.id, "other"])


def test_proxy_echoing_the_parent_task(repo, api, dispatcher, parent):
    api.code = 21
    api.result = "mj-parent"

    with pytest.raises(SubmitFailed):
        dispatcher.invoke(parent.id, UPSCALE)
    assert [i.id for i in repo.list_by_owner("user-1")] == [parent.id]
    assert repo.get(parent.id) == parent
