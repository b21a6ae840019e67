"""HTTP mirror endpoint for the household budget tracker."""
