"""Character Registry tests"""

from src.core.event_types import EventTypes
from src.core.request import InvalidField, MissingField, NotFound, RequestStatus
from src.core.request.enums import CharacterKind
from src.services.character_service import CharacterService


class TestRegister:
    def test_register_trims_name(self, characters):
        result = characters.register("user-1", "  Thalia  ")
        assert result.ok
        assert result.value.name == "Thalia"
        assert result.value.kind == CharacterKind.MAIN
        assert result.value.id is not None

    def test_several_mains_allowed(self, characters):
        assert characters.register("user-1", "Thalia").ok
        assert characters.register("user-1", "Bramble", "main").ok
        assert len(characters.list_for_owner("user-1")) == 2

    def test_validation(self, characters):
        assert characters.register("", "Thalia").error == MissingField("owner_id")
        assert characters.register("user-1", " ").error == MissingField("name")
        assert characters.register("user-1", "Thalia", "bank").error == InvalidField(
            "kind", "bank"
        )
        assert characters.list_for_owner("user-1") == []

    def test_registered_event(self, characters, bus):
        seen = []
        bus.subscribe(EventTypes.CHARACTER_REGISTERED, lambda e: seen.append(e.data))
        char = characters.register("user-1", "Thalia").value
        assert seen == [{"owner_id": "user-1", "character_id": char.id}]


class TestQueries:
    def test_list_mains_first(self, characters):
        characters.register("user-1", "Alty", "alt")
        characters.register("user-1", "Thalia", "main")
        characters.register("user-2", "Stranger")
        names = [c.name for c in characters.list_for_owner("user-1")]
        assert names == ["Thalia", "Alty"]

    def test_get(self, characters):
        char = characters.register("user-1", "Thalia").value
        assert characters.get(char.id) == char
        assert characters.get(999) is None


class TestDelete:
    def test_delete_cascades_into_requests(self, characters, store, new_request):
        char = characters.register("user-1", "Thalia").value
        live = store.create(new_request(item_id="a")).value
        store.create(new_request(item_id="b"))

        result = characters.delete("user-1", char.id)
        assert result.ok
        assert result.value.denied_requests == 2
        assert result.value.character.name == "Thalia"
        assert characters.get(char.id) is None
        assert store.find_by_id(live.id).status == RequestStatus.DENIED

    def test_other_owner_cannot_delete(self, characters):
        char = characters.register("user-1", "Thalia").value
        assert characters.delete("user-2", char.id).error == NotFound("character", char.id)
        assert characters.get(char.id) is not None

    def test_delete_missing(self, characters):
        assert characters.delete("user-1", 31).error == NotFound("character", 31)

    def test_default_cascade_is_noop(self, session_factory, bus):
        service = CharacterService(session_factory, bus)
        char = service.register("user-1", "Thalia").value
        assert service.delete("user-1", char.id).value.denied_requests == 0
