"""
ProfileDirectory: one place that knows profiles live in two collections.

The same person can exist as an authenticated account (users) and as a
roster contact someone added by hand (players), and stored attendee
references don't always say which one correctly. Lookups try the declared
collection first and fall back to the other.
"""

import logging

from localdink.communication.phone import normalize_to_e164
from localdink.domain.models import (
    COURTS,
    GROUPS,
    PLAYERS,
    SOURCE_COLLECTIONS,
    USERS,
    Attendee,
    Court,
    Group,
    Player,
)
from localdink.domain.store import RecordStore

log = logging.getLogger(__name__)


class ProfileDirectory:

    def __init__(self, store: RecordStore):
        self._store = store

    async def resolve(self, ref: Attendee | str) -> Player | None:
        """Profile for an attendee reference; a bare id is looked up as a user."""
        if isinstance(ref, str):
            ref = Attendee(ref, "user")
        primary = ref.source
        secondary = "player" if primary == "user" else "user"
        for source in (primary, secondary):
            record = await self._store.get(SOURCE_COLLECTIONS[source], ref.id)
            if record is not None:
                if source != primary:
                    log.debug("profile %s found in %s, not %s", ref.id, source, primary)
                return Player.from_record(record.id, record.data, source)
        return None

    async def find_all_by_phone(self, phone: str) -> list[Player]:
        """Every profile with this number: users first, then roster players."""
        wanted = normalize_to_e164(phone)
        if wanted is None:
            return []
        found: list[Player] = []
        for source, collection in (("user", USERS), ("player", PLAYERS)):
            records = await self._store.find(
                collection, lambda d: normalize_to_e164(d.get("phone")) == wanted
            )
            found.extend(Player.from_record(r.id, r.data, source) for r in records)
        return found

    async def find_by_phone(self, phone: str) -> Player | None:
        found = await self.find_all_by_phone(phone)
        return found[0] if found else None

    async def roster(self, organizer_id: str) -> list[Player]:
        """The organizer themself plus every roster player they own."""
        players: list[Player] = []
        me = await self.resolve(Attendee(organizer_id, "user"))
        if me is not None:
            me.is_current_user = True
            players.append(me)
        owned = await self._store.find(PLAYERS, lambda d: d.get("ownerId") == organizer_id)
        players.extend(Player.from_record(r.id, r.data, "player") for r in owned)
        return players

    async def courts(self, organizer_id: str) -> list[Court]:
        records = await self._store.find(COURTS, lambda d: d.get("ownerId") in (organizer_id, None))
        return [Court.from_record(r.id, r.data) for r in records]

    async def court(self, court_id: str) -> Court | None:
        record = await self._store.get(COURTS, court_id)
        return Court.from_record(record.id, record.data) if record else None

    async def groups(self, organizer_id: str) -> list[Group]:
        records = await self._store.find(
            GROUPS,
            lambda d: d.get("ownerId") == organizer_id or organizer_id in (d.get("admins") or []),
        )
        return [Group.from_record(r.id, r.data) for r in records]

    async def group(self, group_id: str) -> Group | None:
        record = await self._store.get(GROUPS, group_id)
        return Group.from_record(record.id, record.data) if record else None

    async def add_player(self, owner_id: str, first_name: str, last_name: str, phone: str) -> Player:
        data = {
            "firstName": first_name,
            "lastName": last_name,
            "phone": normalize_to_e164(phone) or phone,
            "ownerId": owner_id,
        }
        record = await self._store.create(PLAYERS, data)
        log.info("owner=%s added player=%s", owner_id, record.id)
        return Player.from_record(record.id, record.data, "player")

    async def add_court(self, owner_id: str, name: str, location: str = "") -> Court:
        record = await self._store.create(COURTS, {"name": name, "location": location, "ownerId": owner_id})
        log.info("owner=%s added court=%s name=%r", owner_id, record.id, name)
        return Court.from_record(record.id, record.data)
