from .scheduler import END_OF_INPUT, ReplayScheduler, unwrap_replay_line

__all__ = ["END_OF_INPUT", "ReplayScheduler", "unwrap_replay_line"]
