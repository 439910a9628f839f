info = {"description": "Collects log lines in memory.", "version": "1.0.0"}


def factory(ctx):
    lines = []
    return {
        "define": {"log_lines": lambda: lines},
        "on_start": lambda ctx: lines.append("logger started"),
    }
