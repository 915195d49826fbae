USER_ID = "user-1"
OTHER_USER_ID = "user-2"


class RecordingRegistry:
    """Stands in for the live connection registry and remembers every emit."""

    def __init__(self):
        self.emitted = []

    def emit(self, user_id, event, payload):
        self.emitted.append((user_id, event, payload))
        return 1


def default_category_id(store, name):
    for category in store.list_categories(USER_ID):
        if category["name"] == name:
            return category["category_id"]
    raise AssertionError(f"no default category named {name}")
