"""Proto file model, parser, synthesizer and writer."""

from .catalog import *
from .parser import *
from .synthesizer import SynthesisError as SynthesisError
from .synthesizer import synthesize as synthesize
from .types import *
from .writer import archive as archive
from .writer import write as write
