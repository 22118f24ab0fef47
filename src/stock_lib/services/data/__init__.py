"""stock_lib.services.data — FastAPI data service."""
