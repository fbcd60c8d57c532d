"""Computer-controlled opponents: strategies, generation, targeting and the phase pipeline."""
