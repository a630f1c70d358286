"""Fixed-point constants shared by the engine.

All amounts are raw integer token units; prices and proportions are 18-decimal
fixed-point integers.
"""

# Precision constants
WAD = 10**18  # 18 decimal precision for prices, values and proportions

# Proportion bounds (share of asset B in the position value)
PROP_ALL_A = 0
PROP_ALL_B = WAD

# Health factor reported when there is no debt at all
HEALTH_FACTOR_NO_DEBT = 999 * WAD

# Index of the accounting asset in every amounts array
INDEX_ASSET_A = 0
INDEX_ASSET_B = 1

# Withdraw percentages are expressed in whole percent
PERCENT_DENOMINATOR = 100
