"""Client-side restore services: parsing, naming rules, request building, job monitoring."""
