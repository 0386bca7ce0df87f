# Auction Monitor Package
# auction status push / history query
#    ↓ (storage)
# retention window (bounded, oldest-by-timestamp evicted)
#    ↓ (data)
# normalized, sorted, bucketed → price / volume series
#    ↓ (api)
# chart_update → browser
