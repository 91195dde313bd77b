"""
Pricing Domain - Price roll-up of the bill of quantities.

Pure arithmetic shared by the roll-up engine:
- Line totals (HT and TTC) from quantity, unit price and VAT
- Bloc unit price from its total and quantity
- Sell-price coefficient from the project margins
"""
