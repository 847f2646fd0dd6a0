"""Knowledge Engine: chunking, embedding and hybrid retrieval."""

__version__ = "0.1.0"
