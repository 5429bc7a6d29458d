"""MPEG transport stream inspection: PAT, PES timestamps and H.264 SPS/PPS."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field

from .common import TS_PACK_LEN, TS_UDP_LEN

log = logging.getLogger(__name__)

TS_SYNC_BYTE = 0x47
INVALID_PID = -1
PAT_PID = 0
INVALID_DTS_PTS = -1
MAX_PES_PAYLOAD = 200 * 1024

NULL_PACKET_HEADER = bytes((TS_SYNC_BYTE, 0x1F, 0xFF, 0x00))

H264_NAL_SPS = 7
H264_NAL_PPS = 8

_VIDEO_STREAM_ID = 0xE0
_AUDIO_STREAM_ID = 0xC0
_PES_START_CODE = b"\x00\x00\x01"
_PES_FIXED_HEADER_LEN = 9
_PTS_LEN = 5


def _null_udp_payload() -> bytearray:
    buf = bytearray(TS_UDP_LEN)
    for start in range(0, TS_UDP_LEN, TS_PACK_LEN):
        buf[start:start + len(NULL_PACKET_HEADER)] = NULL_PACKET_HEADER
    return buf


@dataclass
class TsInfo:
    """State gathered while scanning a transport stream.

    ``ts_data`` holds one UDP payload (seven TS packets): PAT, PMT and a
    packet carrying SPS/PPS once they have been found, null packets otherwise.
    """

    es_pid: int = INVALID_PID
    dts: int = INVALID_DTS_PTS
    pts: int = INVALID_DTS_PTS
    need_spspps: bool = False
    sps: bytes = b""
    pps: bytes = b""
    pat: bytes = b""
    pmt: bytes = b""
    pmt_pid: int = INVALID_PID
    ts_data: bytearray = field(default_factory=_null_udp_payload)

    @property
    def sps_len(self) -> int:
        return len(self.sps)

    @property
    def pps_len(self) -> int:
        return len(self.pps)

    @property
    def pat_len(self) -> int:
        return len(self.pat)

    @property
    def pmt_len(self) -> int:
        return len(self.pmt)


def parse_pes_pts(buf: bytes) -> int:
    """Decode the 33-bit timestamp from a 5-byte PES PTS/DTS field."""
    if len(buf) < _PTS_LEN:
        raise ValueError(f"PES timestamp needs {_PTS_LEN} bytes, got {len(buf)}")
    high = (buf[0] & 0x0E) << 29
    mid = (((buf[1] << 8) | buf[2]) >> 1) << 15
    low = ((buf[3] << 8) | buf[4]) >> 1
    return high | mid | low


def _store_nal(info: TsInfo, nal_type: int, nal: bytes) -> None:
    if nal_type == H264_NAL_SPS:
        info.sps = nal
    elif nal_type == H264_NAL_PPS:
        info.pps = nal
    else:
        log.debug("parse_spspps, wrong nal type=%d.", nal_type)


def parse_spspps(es: bytes, info: TsInfo) -> bool:
    """Find SPS and PPS NAL units (with start codes) in *es*.

    Found units are stored on *info*. Returns True once both are known.
    """
    es_len = len(es)
    pos = 0
    start: int | None = None
    nal_type = 0
    while pos < es_len - 4:
        is_start_code = (
            es[pos] == 0 and es[pos + 1] == 0 and es[pos + 2] == 0
            and (es[pos + 3] == 1 or (es[pos + 3] == 0 and es[pos + 4] == 1))
        )
        if not is_start_code:
            pos += 1
            continue
        if start is not None:
            _store_nal(info, nal_type, bytes(es[start:pos]))
            if info.sps and info.pps:
                return True
        nal_pos = pos + (4 if es[pos + 3] else 5)
        if nal_pos >= es_len:
            break
        nal_type = es[nal_pos] & 0x1F
        if nal_type in (H264_NAL_SPS, H264_NAL_PPS):
            start = pos
        pos = nal_pos

    if start is not None:
        _store_nal(info, nal_type, bytes(es[start:]))
        return bool(info.sps and info.pps)
    return False


def _build_spspps_payload(info: TsInfo, pid: int, stream_id: int) -> None:
    """Write PAT, PMT and an SPS/PPS packet into ``info.ts_data``."""
    data = info.ts_data
    data[0:TS_PACK_LEN] = info.pat[:TS_PACK_LEN].ljust(TS_PACK_LEN, b"\x00")
    data[TS_PACK_LEN:2 * TS_PACK_LEN] = info.pmt[:TS_PACK_LEN].ljust(TS_PACK_LEN, b"\x00")
    pos = 2 * TS_PACK_LEN

    es = info.sps + info.pps
    pes_len = len(es) + _PES_FIXED_HEADER_LEN + _PTS_LEN
    if pes_len > TS_PACK_LEN - 4:
        log.info("pid=%d, pes size=%d is abnormal.", pid, pes_len)
        return

    pos += 1  # sync byte is already in place
    info.es_pid = pid
    data[pos] = 0x40 | ((pid >> 8) & 0xFF)
    pos += 1
    data[pos] = pid & 0xFF
    pos += 1
    data[pos] = 0x10
    ad_len = TS_PACK_LEN - 4 - pes_len - 1
    if ad_len > 0:
        data[pos] = 0x30
        data[pos + 1] = ad_len
        data[pos + 2] = 0x00
        pos += 3
        data[pos:pos + ad_len - 1] = b"\xff" * (ad_len - 1)
        pos += ad_len - 1
    else:
        pos += 1

    header = bytes((0, 0, 1, stream_id, 0, 0, 0x80, 0x80, _PTS_LEN)) + bytes(_PTS_LEN)
    data[pos:pos + len(header)] = header
    pos += len(header)
    data[pos:pos + len(es)] = es


def pes_to_es(pes: bytes, info: TsInfo, pid: int) -> bool:
    """Parse a PES header, storing its timestamps on *info*.

    When ``info.need_spspps`` is set, also look for SPS/PPS in the payload.
    Returns False for a payload that is not an audio/video PES.
    """
    if len(pes) < _PES_FIXED_HEADER_LEN or pes[:3] != _PES_START_CODE:
        return False
    stream_id = pes[3]
    if stream_id not in (_VIDEO_STREAM_ID, _AUDIO_STREAM_ID):
        log.debug("pes_to_es: pid=%d, wrong pes stream_id=0x%x.", pid, stream_id)
        return False

    flags = pes[7]
    pos = _PES_FIXED_HEADER_LEN
    info.dts = INVALID_DTS_PTS
    info.pts = INVALID_DTS_PTS
    try:
        if flags & 0xC0 == 0x80:
            info.pts = info.dts = parse_pes_pts(pes[pos:pos + _PTS_LEN])
            pos += _PTS_LEN
        elif flags & 0xC0 == 0xC0:
            info.pts = parse_pes_pts(pes[pos:pos + _PTS_LEN])
            pos += _PTS_LEN
            info.dts = parse_pes_pts(pes[pos:pos + _PTS_LEN])
            pos += _PTS_LEN
    except ValueError:
        return False

    ok = True
    if info.need_spspps:
        ok = parse_spspps(pes[pos:], info)
        if info.sps and info.pps and info.pat:
            _build_spspps_payload(info, pid, stream_id)
    return ok


def _parse_pat(section: bytes, info: TsInfo) -> bool:
    section_length = ((section[1] & 0x0F) << 8) | section[2]
    for n in range(0, section_length - 12, 4):
        if 11 + n >= len(section):
            break
        program_num = (section[8 + n] << 8) | section[9 + n]
        if program_num != 0:
            info.pmt_pid = ((section[10 + n] & 0x1F) << 8) | section[11 + n]
    return True


def parse_ts_info(packet: bytes, info: TsInfo) -> bool:
    """Inspect one 188-byte TS packet and update *info*.

    Stores PAT and PMT packets, learns the PMT pid from the PAT and reads
    PES timestamps of the elementary stream. Returns False for packets that
    carry nothing of interest (no unit start, other pid, no payload, ...).
    """
    if len(packet) < TS_PACK_LEN:
        raise ValueError(f"TS packet must be {TS_PACK_LEN} bytes, got {len(packet)}")
    if packet[0] != TS_SYNC_BYTE:
        log.debug("parse_ts_info: packet[0]=0x%x not 0x47.", packet[0])
        return False
    if not packet[1] & 0x40:
        return False

    pid = ((packet[1] & 0x1F) << 8) | packet[2]
    if pid == PAT_PID:
        info.pat = bytes(packet[:TS_PACK_LEN])
    else:
        if info.pmt_pid == pid:
            info.pmt = bytes(packet[:TS_PACK_LEN])
            return True
        if info.es_pid != INVALID_PID and pid != info.es_pid:
            return False

    afc = (packet[3] >> 4) & 3
    if afc == 0:
        return False
    has_adaptation = afc & 2
    has_payload = afc & 1

    pos = 4
    if has_adaptation:
        pos += packet[4] + 1
    if pos >= TS_PACK_LEN or not has_payload:
        log.debug("parse_ts_info: pid=%d, payload offset=%d.", pid, pos)
        return False

    if pid == PAT_PID:
        pos += 1  # pointer field
        return _parse_pat(bytes(packet[pos:TS_PACK_LEN]), info)

    ok = pes_to_es(bytes(packet[pos:TS_PACK_LEN]), info, pid)
    if info.dts != INVALID_DTS_PTS or (info.sps and info.pps):
        info.es_pid = pid
    return ok