"""
Trading Engine Components

Core session evaluation components:
- SessionEvaluator: Runs one tick of the crossover strategy for a session
- SignalCalculator: Dual moving-average crossover signal
- PositionReconciler: Closes local positions the broker no longer holds
- OrderExecutor: Opens and closes positions at the broker or on paper
- PositionManager: Position store helpers
- SessionLogger: Append-only session audit log
"""
