"""Live market data: write path, ticker and broadcast gate."""
