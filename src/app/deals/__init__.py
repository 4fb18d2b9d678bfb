"""Deal lifecycle module -- models, schemas, repository, and lifecycle logic.

Provides the DealModel with its workflow phase, stage, and milestone
columns; the sell-side/buy-side workflow phase tables; the milestone-driven
StageProgressionEngine; diligence requests; and DealService, which ties
them to the activity feed.
"""
