from aiortc import RTCIceCandidate

from tools.ice import build_ice_candidate, candidate_to_payload


def test_browser_candidate_is_parsed():
    candidate = build_ice_candidate(
        {
            "candidate": "candidate:842163049 1 udp 1677729535 203.0.113.5 54400 typ srflx raddr 10.0.0.2 rport 54400",
            "sdpMid": "0",
            "sdpMLineIndex": 0,
        }
    )

    assert isinstance(candidate, RTCIceCandidate)
    assert candidate.foundation == "842163049"
    assert candidate.type == "srflx"
    assert candidate.relatedAddress == "10.0.0.2"
    assert candidate.sdpMid == "0"
    assert candidate.sdpMLineIndex == 0


def test_aiortc_candidate_gets_attribute_prefix():
    candidate = RTCIceCandidate(
        component=1,
        foundation="1",
        ip="192.168.1.10",
        port=50000,
        priority=2122260223,
        protocol="udp",
        type="host",
        sdpMid="0",
        sdpMLineIndex=0,
    )

    payload = candidate_to_payload(candidate)

    assert payload["candidate"].startswith("candidate:1 1 udp 2122260223 192.168.1.10 50000 typ host")
    assert payload["sdpMid"] == "0"
    assert payload["sdpMLineIndex"] == 0
