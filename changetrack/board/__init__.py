from .client import HttpChangeClient, LocalChangeClient
from .reconciler import BoardReconciler, MoveOutcome, MoveResult, BOARD_COLUMNS, DROP_TARGETS
