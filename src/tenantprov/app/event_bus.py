# Simple pub/sub
_subs: dict[str, list] = {}

def publish(topic: str, payload=None):
    for h in list(_subs.get(topic, [])):
        try:
            h(payload)
        except Exception as ex:
            # a broken progress listener must not abort a half-done provisioning run
            print(f"[event_bus] handler for {topic} failed: {ex!r}")

def subscribe(topic: str, handler):
    _subs.setdefault(topic, []).append(handler)

def unsubscribe(topic: str, handler):
    handlers = _subs.get(topic, [])
    if handler in handlers:
        handlers.remove(handler)

def clear():
    _subs.clear()
