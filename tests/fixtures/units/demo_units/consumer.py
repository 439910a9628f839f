info = {"requires": ["#storage"]}


def factory(ctx):
    return {"on_ready": lambda ctx: ctx.storage.setdefault("consumer", "ready")}
