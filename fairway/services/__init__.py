"""Services: pricing, cancellation and settlement rules plus the flows that persist them."""
