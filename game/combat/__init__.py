"""Turn-based battles: enemies, formulas, rewards and the battle state machine."""
