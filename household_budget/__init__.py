"""Console entry point for the household budget tracker."""
