"""Mixer core: accumulator, root history, nullifiers, verification and orchestration."""
