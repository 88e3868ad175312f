"""Query key factories for each entity domain."""

from query_cache.filters import ListQuery
from query_cache.keys import KeyFactory, QueryKey


class ProfileKeys(KeyFactory):
    def by_username(self, username: str) -> QueryKey:
        return self.scoped("username", username)

    def current_user(self) -> QueryKey:
        return self.scoped("current-user")


class LocationKeys(KeyFactory):
    def by_block(self, block: str) -> QueryKey:
        return self.scoped("block", block)

    def search(self, term: str) -> QueryKey:
        return self.scoped("search", term)

    def nearby(self, lat: float, lng: float, radius_km: float) -> QueryKey:
        return self.scoped("nearby", lat, lng, radius_km)


class ListingKeys(KeyFactory):
    def by_profile(self, profile_id: str) -> QueryKey:
        return self.scoped("profile", profile_id)

    def featured(self, query: ListQuery | None = None) -> QueryKey:
        """Featured listings; without ``query`` the prefix of every featured page."""
        if query is None:
            return self.scoped("featured")
        return self.scoped("featured", ListQuery.of(query))

    def active(self, query: ListQuery | None = None) -> QueryKey:
        return self.scoped("active", ListQuery.of(query))

    def search(self, term: str) -> QueryKey:
        return self.scoped("search", term)


class MessageKeys(KeyFactory):
    def conversations(self, profile_id: str) -> QueryKey:
        return self.scoped("conversations", profile_id)

    def thread(self, profile_id: str, other_id: str) -> QueryKey:
        """Conversation between two profiles, regardless of who sent first."""
        return self.scoped("thread", *sorted((profile_id, other_id)))


class ThreadKeys(KeyFactory):
    def by_forum(self, forum_id: str) -> QueryKey:
        return self.scoped("forum", forum_id)

    def by_creator(self, profile_id: str) -> QueryKey:
        return self.scoped("creator", profile_id)

    def search(self, term: str) -> QueryKey:
        return self.scoped("search", term)


profile_keys = ProfileKeys("profiles")
location_keys = LocationKeys("locations")
listing_keys = ListingKeys("marketplace-listings")
message_keys = MessageKeys("private-messages")
thread_keys = ThreadKeys("threads")


def listing_record_keys(record: dict) -> tuple[QueryKey, ...]:
    """Keys a listing belongs to beyond its own lists: its owner's listings."""
    profile_id = record.get("profile_id")
    return (listing_keys.by_profile(profile_id),) if profile_id else ()
