"""
Conversions between wire candidate payloads and aiortc candidates.
"""

from aiortc import RTCIceCandidate
from aiortc.sdp import candidate_from_sdp, candidate_to_sdp


def build_ice_candidate(payload: dict) -> RTCIceCandidate:
    """
    Parse a {candidate, sdpMid, sdpMLineIndex} payload into an RTCIceCandidate.

    Browsers prefix the attribute with "candidate:", aiortc's parser does not
    accept the prefix.
    """
    candidate_str = payload["candidate"]
    if candidate_str.startswith("candidate:"):
        candidate_str = candidate_str.split(":", 1)[1]

    candidate = candidate_from_sdp(candidate_str)
    candidate.sdpMid = payload.get("sdpMid")
    candidate.sdpMLineIndex = payload.get("sdpMLineIndex")
    return candidate


def candidate_to_payload(candidate) -> dict:
    """
    Serialize a produced candidate to the wire payload.

    Accepts aiortc RTCIceCandidate objects as well as objects that already
    carry the browser-style ``candidate`` attribute string.
    """
    candidate_str = getattr(candidate, "candidate", None)
    if candidate_str is None:
        candidate_str = "candidate:" + candidate_to_sdp(candidate)
    return {
        "candidate": candidate_str,
        "sdpMid": getattr(candidate, "sdpMid", None),
        "sdpMLineIndex": getattr(candidate, "sdpMLineIndex", None),
    }
