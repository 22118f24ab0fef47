"""
JSON rendering that keeps ``Decimal`` scale on the wire.

Growth, momentum and price-change figures are quantized ``Decimal`` values;
``jsonable_encoder`` would turn ``Decimal("10.00")`` into ``10.0``.  Routes
return ``DecimalJSONResponse(payload)`` directly so the payload skips that
step and each Decimal is written as a bare JSON number in fixed-point form
(``10.00``, ``-3.25``).  Non-finite numbers become ``null``.
"""

import json
import math
from decimal import Decimal
from typing import Any

from fastapi.responses import JSONResponse


def _key(key: Any) -> str:
    return json.dumps(str(key), ensure_ascii=False)


def render_json(obj: Any) -> str:
    """Serialise *obj* (dicts, lists, scalars) with Decimals as fixed-point numbers."""
    if isinstance(obj, Decimal):
        return format(obj, "f") if obj.is_finite() else "null"
    if isinstance(obj, float):
        return json.dumps(obj) if math.isfinite(obj) else "null"
    if isinstance(obj, dict):
        return "{" + ",".join(f"{_key(k)}:{render_json(v)}" for k, v in obj.items()) + "}"
    if isinstance(obj, (list, tuple)):
        return "[" + ",".join(render_json(v) for v in obj) + "]"
    return json.dumps(obj, ensure_ascii=False)


class DecimalJSONResponse(JSONResponse):
    def render(self, content: Any) -> bytes:
        return render_json(content).encode("utf-8")
