import struct
from dataclasses import dataclass, field

import pytest

from annego.packet import (
    MAX_PACKET_LENGTH,
    RES_SUCCESS,
    STR,
    UINT8,
    UINT16,
    UINT32,
    UINT64,
    Header,
    InputNotEnough,
    Marshallable,
    Pack,
    Registry,
    Unpack,
    UnpackError,
    default_marshal,
    default_unmarshal,
    get_marshal_pack,
    marshal_body,
    unmarshal_body,
)


@dataclass
class SimpleProto(Marshallable):
    uri = 1
    t: int = field(default=0, metadata={"yyp": UINT8})
    i: int = field(default=0, metadata={"yyp": UINT32})
    s: str = ""

    def marshal(self, pack):
        pack.put_uint8(self.t)
        pack.put_uint32(self.i)
        pack.put_short_str(self.s)

    def unmarshal(self, unpack):
        self.t = unpack.pop_uint8()
        self.i = unpack.pop_uint32()
        self.s = unpack.pop_short_str()


@dataclass
class HelperProto(Marshallable):
    uri = 1
    i: int = 0
    s: str = ""

    def marshal(self, pack):
        pack.put_uint32(self.i)
        pack.put_short_str(self.s)

    def unmarshal(self, unpack):
        self.i = unpack.pop_uint32()
        self.s = unpack.pop_short_str()


def test_simple_marshal():
    proto = SimpleProto(1, 0x0102, "abcde")
    pk = Pack()
    proto.marshal(pk)
    pk.put_header(proto.uri)
    body = pk.data
    assert len(pk) == 22
    assert body == bytes(
        [22, 0, 0, 0, 1, 0, 0, 0, 200, 0, 1, 2, 1, 0, 0, 5, 0, 97, 98, 99, 100, 101]
    )

    up = Unpack(body + bytes([1, 2, 3]))
    header = up.pop_header()
    assert header == Header(length=22, uri=1, res_code=RES_SUCCESS)
    rsp = SimpleProto()
    rsp.unmarshal(up)
    assert rsp == proto
    assert up.offset == 22


def test_simple_unmarshal_err():
    buff = bytes([20, 0, 0, 0, 1, 0, 0, 0, 200, 0, 1, 2, 1, 0, 0, 5, 0, 97, 98, 99, 100, 101])
    up = Unpack(buff)
    header = up.pop_header()
    assert header == Header(20, 1, RES_SUCCESS)
    with pytest.raises(UnpackError):
        SimpleProto().unmarshal(up)


def test_simple_marshal_body():
    proto = SimpleProto(t=1, i=0x0102, s="hello")
    pk = Pack()
    proto.marshal(pk)
    buff = pk.body_bytes
    assert buff == bytes([1, 2, 1, 0, 0, 5, 0, 104, 101, 108, 108, 111])
    newproto = SimpleProto()
    newproto.unmarshal(Unpack(buff))
    assert newproto == proto


@dataclass
class DeepProto(Marshallable):
    uri = 2
    b: bool = False
    flag: int = field(default=0, metadata={"yyp": UINT16})
    id: int = field(default=0, metadata={"yyp": UINT64})
    s: str = ""
    l: list[SimpleProto] = field(default_factory=list)
    m: dict = field(default_factory=dict, metadata={"yyp": {UINT32: STR}})

    def marshal(self, pack):
        pack.put_bool(self.b)
        pack.put_uint16(self.flag)
        pack.put_uint64(self.id)
        pack.put_short_str(self.s)
        pack.put_uint32(len(self.l))
        for item in self.l:
            item.marshal(pack)
        pack.put_uint32(len(self.m))
        for key, val in self.m.items():
            pack.put_uint32(key)
            pack.put_short_str(val)

    def marshal_reflect(self, pack):
        default_marshal(self, pack)

    def unmarshal(self, unpack):
        self.b = unpack.pop_bool()
        self.flag = unpack.pop_uint16()
        self.id = unpack.pop_uint64()
        self.s = unpack.pop_short_str()
        self.l = []
        for _ in range(unpack.pop_uint32()):
            item = SimpleProto()
            item.unmarshal(unpack)
            self.l.append(item)
        self.m = {}
        for _ in range(unpack.pop_uint32()):
            key = unpack.pop_uint32()
            self.m[key] = unpack.pop_short_str()

    def unmarshal_reflect(self, unpack):
        default_unmarshal(self, unpack)


def new_deep_proto():
    return DeepProto(
        b=True,
        flag=10,
        id=0x010203040506,
        s="".join(str(i) for i in range(128)),
        l=[SimpleProto(0, i, str(i)) for i in range(20)],
        m={i: str(i) for i in range(200)},
    )


def test_deep_proto():
    oldproto = new_deep_proto()
    pk = Pack()
    oldproto.marshal(pk)
    pk.put_header(oldproto.uri)
    up = Unpack(pk.data)
    header = up.pop_header()
    assert header.uri == oldproto.uri
    newproto = DeepProto()
    newproto.unmarshal(up)
    assert newproto == oldproto


def test_reflect_marshal():
    oldproto = new_deep_proto()
    pk1 = Pack()
    oldproto.marshal(pk1)
    pk1.put_header(oldproto.uri)
    buf1 = pk1.data
    pk2 = Pack()
    oldproto.marshal_reflect(pk2)
    pk2.put_header(oldproto.uri)
    buf2 = pk2.data
    assert buf1 == buf2

    up1 = Unpack(buf1)
    up1.pop_header()
    proto1 = DeepProto()
    proto1.unmarshal_reflect(up1)
    assert proto1 == oldproto

    up2 = Unpack(buf2)
    up2.pop_header()
    proto2 = DeepProto()
    proto2.unmarshal(up2)
    assert proto2 == oldproto


@dataclass
class BytesProto(Marshallable):
    uri = 1
    t: int = 0
    i: int = 0
    s: bytes = b""
    l: bytes = b""

    def marshal(self, pack):
        pack.put_uint16(self.t)
        pack.put_uint64(self.i)
        pack.put_short_slice(self.s)
        pack.put_byte_slice(self.l)

    def unmarshal(self, unpack):
        self.t = unpack.pop_uint16()
        self.i = unpack.pop_uint64()
        self.s = unpack.pop_short_slice()
        self.l = unpack.pop_byte_slice()


def test_bytes_proto():
    oldproto = BytesProto(0xDEAF, 0xDEAF000001012, bytes(range(128)), bytes(range(128)))
    pk = Pack()
    oldproto.marshal(pk)
    pk.put_header(oldproto.uri)
    up = Unpack(pk.data)
    up.pop_header()
    newproto = BytesProto()
    newproto.unmarshal(up)
    assert newproto == oldproto


@dataclass
class ContainProto(Marshallable):
    uri = 0
    b: bytes = b""
    l: list[str] = field(default_factory=list)
    m: dict = field(default_factory=dict, metadata={"yyp": {UINT32: SimpleProto}})

    def marshal(self, pack):
        pack.put_slice(self.b, UINT8)
        pack.put_slice(self.l, STR)
        pack.put_map(self.m, (UINT32, SimpleProto))

    def marshal_reflect(self, pack):
        default_marshal(self, pack)

    def unmarshal(self, unpack):
        self.b = unpack.pop_slice(UINT8)
        self.l = unpack.pop_slice(STR)
        self.m = unpack.pop_map((UINT32, SimpleProto))

    def unmarshal_reflect(self, unpack):
        default_unmarshal(self, unpack)


def test_contain_proto():
    oldproto = ContainProto(
        b=bytes(range(32)),
        l=[str(i) for i in range(32)],
        m={i: SimpleProto(i, i + 100, "abcde") for i in range(32)},
    )
    pk = Pack()
    oldproto.marshal(pk)
    plain = pk.body_bytes
    newproto1 = ContainProto()
    newproto1.unmarshal(Unpack(plain))
    assert newproto1 == oldproto

    pk.clear()
    oldproto.marshal_reflect(pk)
    reflected = pk.body_bytes
    assert reflected == plain
    newproto2 = ContainProto()
    newproto2.unmarshal_reflect(Unpack(reflected))
    assert newproto2 == oldproto


@dataclass
class TagProto(Marshallable):
    uri = 0
    u8: int = field(default=0, metadata={"yyp": "uint8"})
    u16: int = field(default=0, metadata={"yyp": "uint16"})
    u32: int = field(default=0, metadata={"yyp": "uint32"})
    u64: int = field(default=0, metadata={"yyp": "uint64"})
    skip: int = field(default=0, metadata={"yyp": "-"})
    s16: str = field(default="", metadata={"yyp": "str"})
    s32: str = field(default="", metadata={"yyp": "str32"})
    b16: bytes = field(default=b"", metadata={"yyp": "str"})
    b32: bytes = field(default=b"", metadata={"yyp": "str32"})


def test_tag_marshal():
    msg = TagProto(8, 16, 32, 64, 1, "ss16", "ss32", b"bs16", b"bs32")
    pk = Pack()
    msg.marshal(pk)
    body = pk.body_bytes
    assert len(body) == 43

    rsp = TagProto(skip=2)
    rsp.unmarshal(Unpack(body))
    assert rsp.skip == 2
    rsp.skip = 1
    assert rsp == msg


@dataclass
class BenchProto(Marshallable):
    uri = 0xA
    flg: int = field(default=0, metadata={"yyp": UINT8})
    u32: int = field(default=0, metadata={"yyp": UINT32})
    u64: int = field(default=0, metadata={"yyp": UINT64})
    list_: list[str] = field(default_factory=list)
    map_: dict = field(default_factory=dict, metadata={"yyp": {UINT32: STR}})

    def marshal(self, pack):
        pack.put_uint8(self.flg)
        pack.put_uint32(self.u32)
        pack.put_uint64(self.u64)
        pack.put_uint32(len(self.list_))
        for item in self.list_:
            pack.put_short_str(item)
        pack.put_uint32(len(self.map_))
        for key, val in self.map_.items():
            pack.put_uint32(key)
            pack.put_short_str(val)

    def marshal_reflect(self, pack):
        pack.put_uint8(self.flg)
        pack.put_uint32(self.u32)
        pack.put_uint64(self.u64)
        pack.put_slice(self.list_, STR)
        pack.put_map(self.map_, (UINT32, STR))

    def unmarshal_reflect(self, unpack):
        self.flg = unpack.pop_uint8()
        self.u32 = unpack.pop_uint32()
        self.u64 = unpack.pop_uint64()
        self.list_ = unpack.pop_slice(STR)
        self.map_ = unpack.pop_map((UINT32, STR))

    def unmarshal(self, unpack):
        self.flg = unpack.pop_uint8()
        self.u32 = unpack.pop_uint32()
        self.u64 = unpack.pop_uint64()
        self.list_ = [unpack.pop_short_str() for _ in range(unpack.pop_uint32())]
        self.map_ = {}
        for _ in range(unpack.pop_uint32()):
            key = unpack.pop_uint32()
            self.map_[key] = unpack.pop_short_str()


def new_bench_proto():
    return BenchProto(
        flg=10,
        u32=0x010203,
        u64=0xFFFAFBFCFD,
        list_=[str(i) for i in range(50)],
        map_={i: str(i + 100) for i in range(50)},
    )


def test_bench_encodings_agree_and_round_trip():
    proto = new_bench_proto()
    packs = [Pack(), Pack(), Pack()]
    proto.marshal(packs[0])
    proto.marshal_reflect(packs[1])
    default_marshal(proto, packs[2])
    bodies = [pk.body_bytes for pk in packs]
    assert bodies[0] == bodies[1] == bodies[2]

    a, b, c = BenchProto(), BenchProto(), BenchProto()
    a.unmarshal(Unpack(bodies[0]))
    b.unmarshal_reflect(Unpack(bodies[0]))
    default_unmarshal(c, Unpack(bodies[0]))
    assert a == proto
    assert b == proto
    assert c == proto


def _two_packets():
    return b"".join(get_marshal_pack(HelperProto(i, "abcdefg123456789")).data for i in range(2))


def test_unmarshal_bytes():
    registry = Registry()
    assert registry.register(HelperProto)
    sendbuf = bytearray(_two_packets())

    with pytest.raises(InputNotEnough):
        registry.unmarshal_bytes(bytes(sendbuf[0:8]))
    with pytest.raises(InputNotEnough):
        registry.unmarshal_bytes(bytes(sendbuf[0:12]))

    msg, readsize = registry.unmarshal_bytes(bytes(sendbuf))
    assert msg == HelperProto(0, "abcdefg123456789")
    assert readsize == len(sendbuf) // 2

    sendbuf[0] = 54
    with pytest.raises(UnpackError):
        registry.unmarshal_bytes(bytes(sendbuf))


def test_unmarshal_body():
    msg1 = HelperProto(1234, "abcdefg123456789")
    msg2 = unmarshal_body(marshal_body(msg1), HelperProto())
    assert msg2.i == msg1.i
    assert msg2.s == msg1.s


def test_register_twice_is_refused():
    registry = Registry()
    assert registry.register(HelperProto) is True
    assert registry.register(SimpleProto()) is False


def test_unregistered_uri():
    registry = Registry()
    with pytest.raises(UnpackError, match="not register uri:1"):
        registry.unmarshal_bytes(get_marshal_pack(HelperProto(1, "x")).data)


def test_header_length_too_long():
    registry = Registry()
    registry.register(HelperProto)
    data = struct.pack("<IIH", MAX_PACKET_LENGTH + 1, 1, 200) + b"\x00"
    with pytest.raises(UnpackError, match="too long"):
        registry.unmarshal_bytes(data)


def test_registry_unmarshal_uses_popped_header():
    registry = Registry()
    registry.register(HelperProto)
    up = Unpack(get_marshal_pack(HelperProto(7, "seven")).data)
    up.pop_header()
    assert registry.unmarshal(up) == HelperProto(7, "seven")


def test_pop_error_message():
    with pytest.raises(UnpackError, match="unpack error: uri 0"):
        Unpack(b"\x01").pop_uint16()


def test_unpack_header_absent_until_popped():
    up = Unpack(get_marshal_pack(HelperProto(1, "a")).data)
    assert up.header is None
    assert up.pop_header().length == 17
    assert up.header == Header(17, 1, RES_SUCCESS)


def test_put_truncates_like_fixed_width():
    pk = Pack()
    pk.put_uint16(0x10001)
    pk.put_uint32(-1)
    assert pk.body_bytes == b"\x01\x00\xff\xff\xff\xff"


def test_uint8_list_is_short_slice():
    pk = Pack()
    pk.put_value([1, 2], [UINT8])
    assert pk.body_bytes == b"\x02\x00\x01\x02"
    assert Unpack(pk.body_bytes).pop_value([UINT8]) == b"\x01\x02"


def test_clear_resets_pack():
    pk = Pack()
    pk.put_uint64(5)
    pk.clear()
    assert len(pk) == 10
    assert pk.body_bytes == b""


def test_long_str_round_trip():
    pk = Pack()
    pk.put_long_str("héllo")
    up = Unpack(pk.body_bytes)
    assert up.pop_long_str() == "héllo"
    assert up.offset == 4 + len("héllo".encode())


@dataclass
class NoSchema(Marshallable):
    x: int = 0


@dataclass
class BadTag(Marshallable):
    x: int = field(default=0, metadata={"yyp": "int7"})


def test_default_marshal_needs_schema_for_int():
    with pytest.raises(TypeError):
        default_marshal(NoSchema(), Pack())


def test_default_marshal_unknown_tag():
    with pytest.raises(ValueError):
        default_marshal(BadTag(), Pack())