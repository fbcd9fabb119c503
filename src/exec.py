# This isn't 100% safe, but is much safer than just blindly evaluating code.

SAFE_BUILTINS = {"abs": abs, "min": min, "max": max, "round": round, "len": len}


def somewhat_safe_eval(code: str, locals_dict: dict) -> any:
    return eval(code, {"__builtins__": SAFE_BUILTINS}, locals_dict)  # pylint: disable=eval-used
