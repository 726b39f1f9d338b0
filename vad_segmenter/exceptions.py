"""
Exceptions raised by the segmentation engine
"""


class SegmenterError(Exception):
    """Base class for engine errors"""

    kind = "segmenter"


class AcquisitionError(SegmenterError):
    """The capture device could not be opened (missing device, permission denied)"""

    kind = "acquisition"


class EncodingError(SegmenterError):
    """A closed utterance could not be turned into a clip"""

    kind = "encoding"
