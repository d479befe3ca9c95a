"""BizDash UI — Reflex state, guard wrappers and pages."""
