"""BalanceCycle - monthly account balance reset service."""
