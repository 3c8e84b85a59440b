"""JSON result helpers shared by the tool modules."""

import json

from ..errors import StoreError


def ok(payload: dict) -> str:
	return json.dumps({"success": True, **payload}, indent=2)


def error(e: StoreError) -> str:
	"""Report a store failure to the caller instead of raising into the transport."""
	return json.dumps({"error": str(e), "kind": e.kind})
