"""Graph workspace: configuration models, undo history, timers and the session orchestrator."""
