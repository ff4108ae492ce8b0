"""Campus prediction-market client: parimutuel odds over a Supabase backend."""

__version__ = "0.1.0"
