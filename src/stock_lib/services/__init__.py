"""stock_lib.services — HTTP service layer."""
