# REINFORCE (vanilla policy gradient) for the cart-pole game.
#
# The agent plays a batch of games with its current stochastic policy, then raises the
# log-probability of each action taken in proportion to the normalized discounted
# reward that followed it. Exploration comes only from sampling the policy.
