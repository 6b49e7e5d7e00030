"""Engine — planner, executor, and run report."""
