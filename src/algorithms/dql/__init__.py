# Deep Q-learning for the snake game: an online convolutional Q-network trained on
# minibatches drawn from a replay memory, against a periodically synced target network.
