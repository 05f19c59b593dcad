"""
Business logic services package.

Services are imported on-demand from their modules, e.g.:
  from hivemind.services.price_feed import PriceFeedService
  from hivemind.services.swarm import get_swarm_coordinator
"""
