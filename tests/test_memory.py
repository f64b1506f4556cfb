from agent.memory import Memory


class Clock:
    def __init__(self, now=1000.0):
        self.now = now

    def __call__(self):
        return self.now


def test_set_and_get(tmp_path):
    with Memory(str(tmp_path / "cache.db")) as memory:
        memory.set("us-east-1:model", "us.model", ttl=60)
        assert memory.get("us-east-1:model") == "us.model"
        assert memory.get("other") is None


def test_values_expire(tmp_path):
    clock = Clock()
    with Memory(str(tmp_path / "cache.db"), clock=clock) as memory:
        memory.set("key", "value", ttl=60)
        clock.now += 59
        assert memory.get("key") == "value"
        clock.now += 1
        assert memory.get("key") is None


def test_purge_expired(tmp_path):
    clock = Clock()
    with Memory(str(tmp_path / "cache.db"), clock=clock) as memory:
        memory.set("short", "1", ttl=10)
        memory.set("long", "2", ttl=100)
        clock.now += 50
        assert memory.purge_expired() == 1
        assert memory.get("long") == "2"


def test_values_persist_between_processes(tmp_path):
    path = str(tmp_path / "nested" / "cache.db")
    with Memory(path) as memory:
        memory.set("key", "value", ttl=60)
    with Memory(path) as memory:
        assert memory.get("key") == "value"
