"""Demo module for scoring transactions against local CSV data"""

from .demo_data_loader import load_demo_store, DemoDataLoader

__all__ = ['load_demo_store', 'DemoDataLoader']
