info = {"requires": ["logger"], "provides": ["#cache"]}


def factory(ctx):
    return {"define.cache": dict}
