from .tracker import StreakState, StreakTracker, compute_streak

__all__ = ['StreakState', 'StreakTracker', 'compute_streak']
