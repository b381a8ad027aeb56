"""Moteur de commandes d'une place de marché multi-vendeurs."""
