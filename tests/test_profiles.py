from suraksha_jal.profiles import ProfileRepository, merge_profile
from suraksha_jal.schemas import ProfilePatch, UserProfile
from suraksha_jal.storage import ALL_PROFILES_KEY, CURRENT_PROFILE_KEY


def _asha():
    return UserProfile(name="Asha", email="asha@example.com", address="Pune, Maharashtra", age=34)


def test_merge_overrides_only_set_fields():
    merged = merge_profile(_asha(), ProfilePatch(address="Guwahati, Assam", blood_group="O+"))
    assert merged.address == "Guwahati, Assam"
    assert merged.blood_group == "O+"
    assert merged.name == "Asha"
    assert merged.age == 34


def test_save_writes_map_and_current(store):
    repo = ProfileRepository(store)
    repo.save(_asha())
    assert repo.current().email == "asha@example.com"
    assert set(repo.all()) == {"asha@example.com"}


def test_save_without_making_current(store):
    repo = ProfileRepository(store)
    repo.save(_asha(), make_current=False)
    assert repo.current() is None
    assert repo.get("asha@example.com").name == "Asha"


def test_update_refreshes_current_slot_for_same_user(store):
    repo = ProfileRepository(store)
    repo.save(_asha())
    updated = repo.update("asha@example.com", ProfilePatch(weight=55.5))
    assert updated.weight == 55.5
    assert repo.current().weight == 55.5
    assert repo.get("asha@example.com").weight == 55.5


def test_update_other_user_leaves_current_alone(store):
    repo = ProfileRepository(store)
    repo.save(UserProfile(name="Ravi", email="ravi@example.com"), make_current=False)
    repo.save(_asha())
    repo.update("ravi@example.com", ProfilePatch(age=40))
    assert repo.current().email == "asha@example.com"
    assert repo.get("ravi@example.com").age == 40


def test_update_unknown_email(store):
    assert ProfileRepository(store).update("nobody@example.com", ProfilePatch(age=3)) is None


def test_corrupt_storage_is_treated_as_absent(store):
    store.set(CURRENT_PROFILE_KEY, "oops")
    store.set(ALL_PROFILES_KEY, '{"x@example.com": {"age": "old"}}')
    repo = ProfileRepository(store)
    assert repo.current() is None
    assert repo.all() == {}


def test_clear_current(store):
    repo = ProfileRepository(store)
    repo.save(_asha())
    repo.clear_current()
    assert repo.current() is None
    assert repo.get("asha@example.com") is not None
