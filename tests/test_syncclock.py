from srtlive.syncclock import TM_JITTER_MS, SyncClock


class FakeClock:
    def __init__(self, now=10_000):
        self.now = now
        self.sleeps = []

    def __call__(self):
        return self.now

    def sleep(self, ms):
        self.sleeps.append(ms)


def make_clock(jitter=TM_JITTER_MS):
    fake = FakeClock()
    return fake, SyncClock(jitter=jitter, clock=fake, sleep=fake.sleep)


def test_first_call_does_not_sleep():
    fake, clock = make_clock()
    assert clock.wait(90_000) == 0
    assert fake.sleeps == []


def test_sleeps_when_stream_ahead():
    fake, clock = make_clock()
    clock.wait(0)
    fake.now += 100
    rts = 500
    slept = clock.wait(rts)
    assert slept == rts - 100
    assert fake.sleeps == [slept]


def test_no_sleep_when_stream_behind():
    fake, clock = make_clock()
    clock.wait(0)
    fake.now += 300
    assert clock.wait(100) == 0
    assert fake.sleeps == []


def test_jitter_resets_reference():
    fake, clock = make_clock()
    clock.wait(0)
    jump = TM_JITTER_MS * 2
    assert clock.wait(jump) == 0
    assert fake.sleeps == []
    fake.now += 50
    slept = clock.wait(jump + 200)
    assert slept == 200 - 50


def test_exact_jitter_boundary_resets():
    fake, clock = make_clock(jitter=250)
    clock.wait(0)
    assert clock.wait(250) == 0
    assert fake.sleeps == []


def test_jitter_can_be_changed():
    fake, clock = make_clock()
    clock.jitter = 5000
    clock.wait(0)
    slept = clock.wait(3000)
    assert slept == 3000
    assert fake.sleeps == [3000]